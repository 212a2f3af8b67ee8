from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv


@dataclass(frozen=True)
class ClientSettings:
    api_url: str = 'http://localhost:5000'
    state_file: Optional[str] = None
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> 'ClientSettings':
        load_dotenv()
        return cls(
            api_url=os.getenv('PARABELLUM_API_URL', cls.api_url).rstrip('/'),
            state_file=os.getenv('PARABELLUM_STATE_FILE') or None,
            timeout=float(os.getenv('PARABELLUM_HTTP_TIMEOUT', str(cls.timeout))),
        )
