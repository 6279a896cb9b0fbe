from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from errors import AppError


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "data": jsonable_encoder(data if data is not None else {}),
            "error": None,
            "message": message,
        }
    )


def error_response(error_code, status=400, message="An error occurred", **details):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "error": error_code,
            "message": message,
            **jsonable_encoder(details),
        }
    )


def app_error_response(exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, **jsonable_encoder(exc.to_dict())},
    )
