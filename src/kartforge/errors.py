"""
错误类型 - Error taxonomy

服务层抛出这些异常，HTTP 边界把它们映射为状态码和 JSON 错误体。
Services raise these; the HTTP boundary maps them to status codes and JSON payloads.
"""

from __future__ import annotations

from typing import Dict, List


class KartForgeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.message}


class InvalidInputError(KartForgeError):
    """输入缺失或格式错误，在写入存储之前检测"""

    status_code = 400

    def __init__(self, details: List[Dict[str, str]]):
        super().__init__("Validation error")
        self.details = details

    @classmethod
    def for_field(cls, field: str, message: str) -> "InvalidInputError":
        return cls([{"field": field, "message": message}])

    @property
    def fields(self) -> List[str]:
        return [d["field"] for d in self.details]

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(KartForgeError):
    status_code = 404

    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class UnauthorizedError(KartForgeError):
    status_code = 401

    def __init__(self):
        super().__init__("Unauthorized")


class AdminNotConfiguredError(KartForgeError):
    status_code = 503

    def __init__(self):
        super().__init__("Admin authentication not configured")


class ConflictError(KartForgeError):
    status_code = 409
