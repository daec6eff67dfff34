from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class Accountability(BaseModel):
    """Who is making the request."""
    user: Optional[str] = None
    role: Optional[str] = None
    admin: bool = False


class BatchPayload(BaseModel):
    """Object body of a batch update/delete request."""
    model_config = ConfigDict(extra="allow")

    keys: Optional[List[Union[StrictInt, StrictStr]]] = Field(
        default=None, description="Primary keys of the items to act on"
    )
    query: Optional[Dict[str, Any]] = Field(
        default=None, description="Query selecting the items to act on"
    )
    data: Any = Field(default=None, description="Values to apply on update")


@dataclass
class BatchRequest:
    """Per-request descriptor handed to the batch validator.

    ``body`` and ``sanitized_query`` are rewritten in place.
    """
    method: str
    body: Any = None
    singleton: bool = False
    sanitized_query: Optional[Dict[str, Any]] = None
    accountability: Optional[Accountability] = None
