"""
Typed views of the payment vendors' JSON payloads.

Both vendors send loosely typed JSON (result codes arrive as "0" or 0,
amounts as strings). Parsing them here keeps the coercion in one place.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _VendorModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LipiaStkData(_VendorModel):
    reference: str
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    amount: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v):
        return None if v is None else str(v)


class LipiaStkResponse(_VendorModel):
    """Body of a successful POST /request/stk"""
    message: Optional[str] = None
    data: LipiaStkData


class DarajaTokenResponse(_VendorModel):
    access_token: str
    expires_in: int = Field(default=3599)

    @field_validator("expires_in", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        return int(v)


class DarajaStkPushResponse(_VendorModel):
    merchant_request_id: str = Field(alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    response_code: str = Field(alias="ResponseCode")
    response_description: Optional[str] = Field(default=None, alias="ResponseDescription")
    customer_message: Optional[str] = Field(default=None, alias="CustomerMessage")

    @field_validator("response_code", mode="before")
    @classmethod
    def code_as_text(cls, v):
        return str(v)

    @property
    def accepted(self) -> bool:
        return self.response_code == "0"


class DarajaStkQueryResponse(_VendorModel):
    checkout_request_id: Optional[str] = Field(default=None, alias="CheckoutRequestID")
    response_code: Optional[str] = Field(default=None, alias="ResponseCode")
    result_code: Optional[str] = Field(default=None, alias="ResultCode")
    result_desc: Optional[str] = Field(default=None, alias="ResultDesc")

    @field_validator("response_code", "result_code", mode="before")
    @classmethod
    def code_as_text(cls, v):
        return None if v is None else str(v)


class DarajaErrorResponse(_VendorModel):
    request_id: Optional[str] = Field(default=None, alias="requestId")
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")


class CallbackItem(_VendorModel):
    name: str = Field(alias="Name")
    value: Any = Field(default=None, alias="Value")


class CallbackMetadata(_VendorModel):
    items: List[CallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(_VendorModel):
    merchant_request_id: Optional[str] = Field(default=None, alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    result_code: str = Field(alias="ResultCode")
    result_desc: Optional[str] = Field(default=None, alias="ResultDesc")
    metadata: Optional[CallbackMetadata] = Field(default=None, alias="CallbackMetadata")

    @field_validator("result_code", mode="before")
    @classmethod
    def code_as_text(cls, v):
        return str(v)

    def metadata_dict(self) -> Dict[str, Any]:
        if self.metadata is None:
            return {}
        return {item.name: item.value for item in self.metadata.items}

    @property
    def receipt_number(self) -> Optional[str]:
        receipt = self.metadata_dict().get("MpesaReceiptNumber")
        return None if receipt is None else str(receipt)


class _CallbackBody(_VendorModel):
    stk_callback: StkCallback = Field(alias="stkCallback")


class DarajaCallback(_VendorModel):
    """{"Body": {"stkCallback": {...}}} as POSTed to CallBackURL"""
    body: _CallbackBody = Field(alias="Body")

    @property
    def callback(self) -> StkCallback:
        return self.body.stk_callback
