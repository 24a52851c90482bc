from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AdminRequest(BaseModel):
    # Upstream ids and table numbers arrive as either JSON numbers or strings.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class OrderRefRequest(AdminRequest):
    order_id: str | None = Field(default=None, alias='orderId')


class TableAddRequest(AdminRequest):
    table_no: str | None = Field(default=None, alias='tableNo')


class TableToggleRequest(AdminRequest):
    table_no: str | None = Field(default=None, alias='tableNo')
    active: bool = False


class QrHistoryRequest(AdminRequest):
    url: str | None = None


class OrderStatusRequest(AdminRequest):
    id: str | None = None
    status: str | None = None


class OrderClearRequest(AdminRequest):
    id: str | None = None
    cleared: bool = True


class RefundRequest(AdminRequest):
    id: str | None = None


class MenuItemCreate(AdminRequest):
    id: str | None = None
    name: str | None = None
    price: int = Field(default=0, ge=0)
    active: bool = True
    soldout: bool = False

    def upstream_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class MenuItemPatch(AdminRequest):
    """Partial menu update.

    A field left out of the request body is "absent"; a field sent as ``null``
    is forwarded upstream as such. Locally both keep the stored value.
    """

    name: str | None = None
    price: int | None = Field(default=None, ge=0)
    active: bool | None = None
    soldout: bool | None = None

    def upstream_payload(self) -> dict:
        return self.model_dump(exclude_unset=True)

    def local_changes(self) -> dict:
        return {key: value for key, value in self.model_dump(exclude_unset=True).items() if value is not None}
