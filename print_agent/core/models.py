from __future__ import annotations

"""
Pydantic models shared across the agent.

Printer and Config serialize with the camelCase field names used by the
backend and by previously persisted JSON files, so records written by older
agent versions load unchanged.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RAW_PORT = 9100
DEFAULT_THERMAL_WIDTH = 384
# Applied to persisted records that predate the size field.
LEGACY_RASTER_WIDTH = 576


class PrinterType(str, Enum):
    THERMAL = "thermal"
    INKJET = "inkjet"
    LASER = "laser"
    UNSET = ""


class Printer(BaseModel):
    """
    A physical printer known to the agent. IP is the identity.

    `type` keeps whatever string the record carries so printers of a type
    this agent cannot drive still load (and round-trip unchanged); `kind`
    is None for those and their jobs are rejected at dispatch.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    ip: str
    port: int = DEFAULT_RAW_PORT
    name: str = ""
    description: str = ""
    enabled: bool = Field(default=True, alias="isEnabled")
    tenant_id: int = Field(default=0, alias="tenantId")
    restaurant_id: int = Field(default=0, alias="restaurantId")
    credential: str = Field(default="", alias="agent_key")
    type: str = PrinterType.UNSET.value
    raster_width: int = Field(default=0, alias="size")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: object) -> str:
        if v is None:
            return PrinterType.UNSET.value
        return str(v.value if isinstance(v, Enum) else v).strip().lower()

    @property
    def kind(self) -> Optional[PrinterType]:
        try:
            return PrinterType(self.type)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return self.name or self.ip

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Config(BaseModel):
    """
    Process-wide agent configuration. Immutable once loaded; passed
    explicitly to every component that needs it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    app_version: str = Field(default="", alias="appVersion")
    api_key: str = Field(default="", alias="apiKey")
    tenant_id: int = Field(default=0, alias="tenantId")
    restaurant_id: int = Field(default=0, alias="restaurantId")
    api_url: str = Field(default="https://api.perfect-menu.it", alias="apiUrl")
    ws_url: str = Field(default="wss://ws.perfect-menu.it/agent", alias="wsUrl")

    # Agent tunables
    reconnect_backoff: float = Field(default=5.0, alias="reconnectBackoff", gt=0)
    max_reconnect_backoff: float = Field(default=5.0, alias="maxReconnectBackoff", gt=0)
    scan_ports: List[int] = Field(default_factory=lambda: [DEFAULT_RAW_PORT], alias="scanPorts")
    scan_timeout: float = Field(default=0.3, alias="scanTimeout", gt=0)
    scan_concurrency: int = Field(default=50, alias="scanConcurrency", ge=1)
    printer_timeout: float = Field(default=5.0, alias="printerTimeout", gt=0)
    drain_delay: float = Field(default=0.5, alias="drainDelay", ge=0)
    template: str = "order.txt.j2"
    template_dir: Optional[str] = Field(default=None, alias="templateDir")
    work_dir: Optional[str] = Field(default=None, alias="workDir")
    status_port: Optional[int] = Field(default=None, alias="statusPort")
    stop_on_unregister: bool = Field(default=False, alias="stopOnUnregister")

    @field_validator("api_url", "ws_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


__all__ = [
    "Config",
    "DEFAULT_RAW_PORT",
    "DEFAULT_THERMAL_WIDTH",
    "LEGACY_RASTER_WIDTH",
    "Printer",
    "PrinterType",
]
