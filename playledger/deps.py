from typing import Optional
from fastapi import Header, HTTPException

from .platform import Platform

# set on startup (or directly by tests)
platform: Optional[Platform] = None


def get_platform() -> Platform:
    if platform is None:
        raise HTTPException(status_code=503, detail="platform not initialised")
    return platform


def get_caller(x_caller: str = Header(default="")) -> str:
    # identity is resolved upstream by the auth layer and trusted as-is
    caller = x_caller.strip()
    if not caller:
        raise HTTPException(status_code=401, detail="missing X-Caller header")
    return caller
