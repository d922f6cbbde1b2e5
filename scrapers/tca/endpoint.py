"""
查詢端點模組

請求：{"prefix": str, "suffix": str}
回應：{"success": true, "data": {...}} 或 {"success": false, "error": str}

錯誤字串 "GUIA NO ENCONTRADA" 表示 NotFound，其他錯誤皆為 Unavailable。
CheckEndpointClient 提供與 TCAPortalClient 相同的 check_guide() 介面，
排程器可使用任一個。
"""

import logging
from typing import Any, Dict, Optional

import requests

from core.models import NOT_FOUND_ERROR, CheckOutcome, ExtractedGuideData, Found, NotFound, Unavailable

logger = logging.getLogger(__name__)


class MalformedResponseError(ValueError):
    """Check endpoint 回應格式不正確"""
    pass


def outcome_to_response(outcome: CheckOutcome) -> Dict[str, Any]:
    """將查詢結果轉換為 check endpoint 回應"""
    if isinstance(outcome, Found):
        return {"success": True, "data": outcome.data.to_dict()}
    if isinstance(outcome, NotFound):
        return {"success": False, "error": NOT_FOUND_ERROR}
    if isinstance(outcome, Unavailable):
        return {"success": False, "error": outcome.reason}
    raise TypeError(f"Unknown check outcome: {outcome!r}")


def outcome_from_response(payload: Any) -> CheckOutcome:
    """
    解析 check endpoint 回應

    Args:
        payload: 已解碼的 JSON

    Returns:
        Found / NotFound / Unavailable

    Raises:
        MalformedResponseError: 回應不是預期的格式
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
        raise MalformedResponseError(f"Unexpected check response: {payload!r}")

    if payload["success"]:
        data = payload.get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError("Successful check response without data")
        return Found(ExtractedGuideData.from_dict(data))

    error = payload.get("error")
    if not isinstance(error, str):
        raise MalformedResponseError("Failed check response without error string")
    if error == NOT_FOUND_ERROR:
        return NotFound()
    return Unavailable(error)


class CheckEndpointClient:
    """透過 HTTP check endpoint 查詢指南"""

    def __init__(self, endpoint_url: str, timeout: float = 60.0, session: Optional[requests.Session] = None):
        if not endpoint_url:
            raise ValueError("endpoint_url must be set")
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def source_name(self) -> str:
        return "tca_check_endpoint"

    def check_guide(self, prefix: str, suffix: str) -> CheckOutcome:
        """
        查詢指南狀態

        網路錯誤與逾時返回 Unavailable；回應格式錯誤時拋出
        MalformedResponseError，由批次處理記錄為該指南的錯誤。
        """
        try:
            response = self._session.post(
                self.endpoint_url,
                json={"prefix": prefix, "suffix": suffix},
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("Check endpoint timeout for %s-%s", prefix, suffix)
            return Unavailable("navigation timeout")
        except requests.RequestException as e:
            logger.warning("Check endpoint unreachable: %s", e)
            return Unavailable(f"check endpoint unreachable: {e}")

        try:
            payload = response.json()
        except ValueError:
            raise MalformedResponseError(
                f"Check endpoint returned non-JSON body (HTTP {response.status_code})"
            )
        return outcome_from_response(payload)

    def close(self) -> None:
        self._session.close()
