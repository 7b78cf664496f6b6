from datetime import datetime,timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

CENTS = Decimal("0.01")


def now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes even for DateTime(timezone=True) columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def build_success(data: Any,
                  trace_id: Optional[str] = None,request_id: Optional[str] = None,) -> Dict[str, Any]:
    return {
        "status": "ok",
        "data": data,
        "error": None,
        "trace_id": trace_id,
        "request_id": request_id,
    }

def build_error(code: Union[str, int] = "UNKNOWN_ERROR",
                details: Optional[Any] = None,
                request_id: Optional[str] = None,
                trace_id: Optional[str] = None) -> Dict[str, Any]:

    return {
        "status": "error",
        "data": None,
        "error": {"code": code, "details": details},
        "trace_id": trace_id,
        "request_id": request_id,
    }

def json_ok(content: Dict[str, Any], status_code: int = 200,headers = None) -> JSONResponse:
    return JSONResponse(jsonable_encoder(content), status_code=status_code,headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(jsonable_encoder(content), status_code=status_code, headers=headers)

def success_response(data: Any, status_code: int = 200,headers: Optional[Dict[str, Any]] = None ,
                     trace_id: Optional[str] = None , request_id: Optional[str] = None) -> JSONResponse:
    content = build_success(data, request_id=request_id, trace_id=trace_id)
    return json_ok(content, status_code=status_code,headers=headers)
