from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from print_agent.core.errors import RenderError
from print_agent.core.models import Config
from print_agent.printing.render import Renderer, format_date, format_money, resolve_font, wrap_text
from print_agent.session.messages import Job


def _locate_dejavu_sans() -> Optional[str]:
    """
    Try to locate a TrueType DejaVuSans.ttf shipped with Pillow so the renderer
    can always resolve a TTF in test environments.
    """
    try:
        import PIL  # type: ignore

        pil_dir = Path(PIL.__file__).resolve().parent
        for c in (pil_dir / "fonts" / "DejaVuSans.ttf", pil_dir / "Tests" / "fonts" / "DejaVuSans.ttf"):
            if c.exists():
                return str(c)
    except Exception:
        pass
    return None


ORDER = {
    "id": 501,
    "restaurant": {"name": "Trattoria"},
    "table": {"number": 12},
    "createdAt": "2024-03-05T19:42:00Z",
    "orderPlates": [{"quantity": 2, "plate": {"name": "Margherita"}}],
    "orderDrinks": [{"quantity": 1, "drink": {"name": "Water"}}],
    "notes": "no basil",
    "totalAmount": 21.5,
}


def test_filters():
    assert format_money("10.5") == "10.50"
    assert format_money(None) == "0.00"
    assert format_date("2024-03-05T19:42:00Z") == "05/03/2024 19:42"
    assert format_date("yesterday") == "yesterday"


def test_default_template_renders_order_lines():
    text = Renderer(Config(api_key="k")).render_text(Job(job_id="501", content=ORDER))
    lines = text.splitlines()
    assert lines[0] == "## Trattoria"
    assert "## Table 12" in lines
    assert "Order #501" in lines
    assert "05/03/2024 19:42" in lines
    assert "2 x Margherita" in lines
    assert "1 x Water" in lines
    assert "Notes: no basil" in lines
    assert "## Total 21.50" in lines


def test_plain_text_content_is_printed_as_is():
    text = Renderer(Config(api_key="k")).render_text(Job(content="Hello kitchen"))
    assert text.strip() == "Hello kitchen"


def test_missing_nested_fields_do_not_break_rendering():
    text = Renderer(Config(api_key="k")).render_text(Job(job_id="7", content={"orderPlates": []}))
    assert "Order #7" in text


def test_custom_template_dir(tmp_path):
    (tmp_path / "ticket.j2").write_text("## {{ order.title }}\n---\n{{ job.job_id }}\n")
    renderer = Renderer(Config(api_key="k", template_dir=str(tmp_path)))
    text = renderer.render_text(Job(job_id="x1", content={"title": "Pass"}, template="ticket.j2"))
    assert text.splitlines() == ["## Pass", "---", "x1"]


def test_unknown_template_raises_render_error():
    with pytest.raises(RenderError):
        Renderer(Config(api_key="k")).render_text(Job(content="x", template="missing.j2"))


def test_render_produces_grayscale_image_of_requested_width():
    font = _locate_dejavu_sans()
    img = Renderer(Config(api_key="k"), font_path=font).render(Job(job_id="501", content=ORDER), 384)
    assert isinstance(img, Image.Image)
    assert img.mode == "L"
    assert img.width == 384
    assert img.height > 100
    assert min(img.getdata()) == 0


def test_wrap_text_respects_width():
    font = resolve_font(24, _locate_dejavu_sans())
    lines = wrap_text("a very long line of order notes that must wrap " * 3, font, 200)
    assert len(lines) > 1
    assert all(font.getbbox(line)[2] - font.getbbox(line)[0] <= 200 for line in lines)
