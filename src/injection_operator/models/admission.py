"""
Pydantic models for the Kubernetes admission review exchange.

The API server POSTs an AdmissionReview wrapping the request; the webhook
answers with an AdmissionReview wrapping the response. The pod travels as raw
JSON bytes so that the patch can be computed against exactly what was sent.
"""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from injection_operator.constants import (
    ADMISSION_API_VERSION,
    ADMISSION_REVIEW_KIND,
    PATCH_TYPE_JSON,
)


class AdmissionRequest(BaseModel):
    """Immutable admission request for a single pod."""

    model_config = {"frozen": True}

    uid: str
    namespace: str = ""
    name: str = ""
    operation: str = "CREATE"
    dry_run: bool = False
    object_raw: bytes = Field(b"", description="Raw JSON of the admitted object")

    @classmethod
    def from_review(cls, review: Any) -> "AdmissionRequest":
        """
        Extract the request from an AdmissionReview body.

        Args:
            review: Decoded AdmissionReview JSON

        Returns:
            The admission request

        Raises:
            ValueError: If the body is not an AdmissionReview with a request
        """
        if not isinstance(review, dict) or not isinstance(review.get("request"), dict):
            raise ValueError("AdmissionReview body does not contain a request")

        request = review["request"]
        if not request.get("uid"):
            raise ValueError("AdmissionReview request has no uid")

        obj = request.get("object")
        return cls(
            uid=request["uid"],
            namespace=request.get("namespace") or "",
            name=request.get("name") or "",
            operation=request.get("operation") or "CREATE",
            dry_run=bool(request.get("dryRun", False)),
            object_raw=json.dumps(obj).encode() if obj is not None else b"",
        )


class AdmissionResponse(BaseModel):
    """
    Admission response produced by the pod mutation webhook.

    The verdict is always 'allowed'; an empty patch means no mutation.
    """

    uid: str
    allowed: bool = True
    patch: list[dict[str, Any]] = Field(default_factory=list)
    message: str | None = None

    @property
    def patched(self) -> bool:
        return bool(self.patch)

    def to_review(self) -> dict[str, Any]:
        """Wrap the response into an AdmissionReview body."""
        response: dict[str, Any] = {"uid": self.uid, "allowed": self.allowed}
        if self.patch:
            response["patchType"] = PATCH_TYPE_JSON
            response["patch"] = base64.b64encode(
                json.dumps(self.patch).encode()
            ).decode()
        if self.message:
            response["status"] = {"message": self.message}

        return {
            "apiVersion": ADMISSION_API_VERSION,
            "kind": ADMISSION_REVIEW_KIND,
            "response": response,
        }
