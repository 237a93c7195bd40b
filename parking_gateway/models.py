# parking_gateway/models.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

BodyType = Literal["raw", "form", "json"]

class FlexibleModel(BaseModel):
    model_config = ConfigDict(extra="allow")

# ---------- Templates ----------
class RequestTemplate(FlexibleModel):
    url: str
    method: Optional[str] = None
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Union[str, Dict[str, Any], None] = None
    bodyType: Optional[BodyType] = None

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("url must not be empty")
        return v

class SuccessRule(FlexibleModel):
    path: Optional[str] = None
    equals: Union[str, int, float, bool, None] = None
    regex: Optional[str] = None

class ResponseRule(FlexibleModel):
    type: Optional[Literal["json", "text"]] = None
    success: Optional[SuccessRule] = None
    messagePath: Optional[str] = None
    redirectPath: Optional[str] = None

# ---------- Discount type record (owned by the store) ----------
class DiscountTypeConfig(FlexibleModel):
    code: str
    name: str
    description: Optional[str] = None
    sortOrder: int = 0
    isActive: bool = True
    isSystem: bool = False
    jsessionid: Optional[str] = None
    refererUrl: Optional[str] = None
    scanUrl: Optional[str] = None
    postParams: Optional[str] = None  # JSON object, legacy mode
    useCustomRequest: bool = False
    requestTemplate: Optional[str] = None
    responseTemplate: Optional[str] = None  # JSON ResponseRule

# ---------- Results ----------
class DiscountInfo(BaseModel):
    plate: str = ""
    discountcharge: float = 0
    needcharge: str = "0"
    entertime: str = ""
    staytime: str = ""

class SubmissionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    rawResponse: Optional[str] = None
    redirectUrl: Optional[str] = None
    discountInfo: Optional[DiscountInfo] = None
    errorCode: Optional[str] = None

class SessionResolution(BaseModel):
    jsessionid: str
    redirectUrl: Optional[str] = None
    query: Optional[Dict[str, str]] = None

class ScanUrlUpdateResult(BaseModel):
    success: bool
    jsessionid: Optional[str] = None
    message: Optional[str] = None
    errorCode: Optional[str] = None

@dataclass
class Evaluation:
    success: bool
    message: Optional[str] = None
    redirectUrl: Optional[str] = None
    json: Any = None
    errorCode: Optional[str] = None

@dataclass
class PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

@dataclass
class UpstreamResponse:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

# ---------- Operating modes ----------
@dataclass(frozen=True)
class LegacyMode:
    jsessionid: str
    referer: Optional[str]
    post_params: Dict[str, Any]

@dataclass(frozen=True)
class CustomMode:
    template: RequestTemplate
    rule: Optional[ResponseRule] = None

OperatingMode = Union[LegacyMode, CustomMode]

# ---------- API payloads ----------
class SubmitRequest(FlexibleModel):
    plateNumber: str
    discountTypeCode: str
    note: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    extra: Dict[str, Optional[str]] = Field(default_factory=dict)

class ScanUrlUpdate(FlexibleModel):
    scanUrl: str

class CustomTemplateUpdate(FlexibleModel):
    useCustomRequest: bool = True
    requestTemplate: Optional[str] = None
    responseTemplate: Optional[str] = None

class TemplatePreviewRequest(FlexibleModel):
    requestTemplate: Optional[str] = None  # defaults to the stored template
    plateNumber: str = ""
    note: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    extra: Dict[str, Optional[str]] = Field(default_factory=dict)

class DiscountTypeList(BaseModel):
    discountTypes: List[DiscountTypeConfig]
