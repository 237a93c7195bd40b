# parking_gateway/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import httpx

from . import __version__
from .config import ALLOWED_ORIGINS, DEFAULT_TIMEOUT, EXPECTED_API_KEY, LOG_LEVEL
from .directives import split_note
from .discount import build_context, send_parking_discount
from .models import (
    CustomTemplateUpdate,
    DiscountTypeConfig,
    DiscountTypeList,
    PreparedRequest,
    ScanUrlUpdate,
    ScanUrlUpdateResult,
    SubmissionResult,
    SubmitRequest,
    TemplatePreviewRequest,
)
from .request_builder import build_request
from .session_resolver import update_discount_url
from .store import DiscountTypeStore, InMemoryDiscountTypeStore
from .template_parser import parse_request_template, parse_response_rule

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

async def verify_api_key(x_api_key: Optional[str] = Header(default=None)):
    if not EXPECTED_API_KEY:
        return True  # no key configured -> no check
    if x_api_key != EXPECTED_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid X-API-KEY")
    return True

# ================== GATEWAY ==================
class ParkingGateway:
    def __init__(self, store: DiscountTypeStore, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.store = store
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self):
        self.store.bootstrap()
        self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT, transport=self.transport)
        logger.info("[STARTUP] gateway ready timeout=%s", DEFAULT_TIMEOUT)

    async def stop(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        assert self._client is not None, "HTTP client not started"
        return self._client

    def require_type(self, code: str) -> DiscountTypeConfig:
        discount_type = self.store.get_by_code(code)
        if discount_type is None:
            raise HTTPException(status_code=404, detail=f"Discount type not found: {code}")
        return discount_type

    async def submit(self, payload: SubmitRequest) -> SubmissionResult:
        return await send_parking_discount(
            self.client,
            self.store,
            payload.plateNumber,
            payload.discountTypeCode,
            note=payload.note,
            name=payload.name,
            phone=payload.phone,
            extra=payload.extra,
        )

    def preview(self, code: str, payload: TemplatePreviewRequest) -> PreparedRequest:
        discount_type = self.require_type(code)
        template = parse_request_template(payload.requestTemplate or discount_type.requestTemplate)
        if template is None:
            raise HTTPException(
                status_code=422, detail=f"Custom request template parse failed for {discount_type.name}"
            )
        note = split_note(payload.note)
        context = build_context(
            payload.plateNumber, discount_type, note, payload.name, payload.phone, payload.extra
        )
        return build_request(template, context, note)

gateway = ParkingGateway(InMemoryDiscountTypeStore())

# ================== APP (lifespan) ==================
@asynccontextmanager
async def lifespan(app: FastAPI):
    await gateway.start()
    yield
    await gateway.stop()

app = FastAPI(title="Parking Discount Gateway", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# ================== Health ==================
@app.get("/health")
async def health():
    return {"ok": True, "discount_types": len(gateway.store.list_all())}

# ================== Submission ==================
@app.post("/submit", response_model=SubmissionResult, response_model_exclude_none=True,
          dependencies=[Depends(verify_api_key)])
async def submit(payload: SubmitRequest):
    return await gateway.submit(payload)

# ================== Discount types (admin) ==================
@app.get("/discount-types", response_model=DiscountTypeList, dependencies=[Depends(verify_api_key)])
async def list_discount_types():
    return DiscountTypeList(discountTypes=gateway.store.list_all())

@app.post("/discount-types/{code}/scan-url", response_model=ScanUrlUpdateResult,
          response_model_exclude_none=True, dependencies=[Depends(verify_api_key)])
async def update_scan_url(code: str, body: ScanUrlUpdate):
    return await update_discount_url(gateway.client, gateway.store, code, body.scanUrl)

@app.put("/discount-types/{code}/custom", response_model=DiscountTypeConfig,
         dependencies=[Depends(verify_api_key)])
async def update_custom_templates(code: str, body: CustomTemplateUpdate):
    gateway.require_type(code)
    if body.responseTemplate and body.responseTemplate.strip() and parse_response_rule(body.responseTemplate) is None:
        logger.warning("[ADMIN] type=%s stored an unparseable response template", code)
    return gateway.store.update(
        code,
        useCustomRequest=body.useCustomRequest,
        requestTemplate=body.requestTemplate,
        responseTemplate=body.responseTemplate,
    )

@app.post("/discount-types/{code}/preview", response_model=PreparedRequest,
          dependencies=[Depends(verify_api_key)])
async def preview_request(code: str, body: TemplatePreviewRequest):
    return gateway.preview(code, body)
