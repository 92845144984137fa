"""
Printing subsystem for the print agent.

- raster: ESC/POS raster encoding of Pillow images
- render: order template -> Pillow image
- spooler: OS print-command sink for inkjet/laser printers
- dispatcher: per-job delivery, result reporting and dispatch history
"""

from .raster import build_print_job, image_to_raster, resize_to_width

__all__ = ["build_print_job", "image_to_raster", "resize_to_width"]
