# app/api/listings/health_info.py
"""
health_info 텍스트에 포함된 접종 증명서 URL을 다루는 순수 함수 모음.

문법:
    ... 자유 텍스트 ...
    Vaccination Proof: https://<공백이 아닌 문자들>

- 마커(`Vaccination Proof: `) 바로 뒤에 https:// 로 시작하는 URL이 와야 합니다.
- URL은 다음 공백 문자 직전까지입니다.
- 여러 개가 있으면 첫 번째 것을 사용합니다.

접종 증명서 URL을 별도 필드로 승격하기 전까지 이 모듈만이 해당 문법을 알고 있어야 합니다.
"""
import re
from typing import Optional
from urllib.parse import urlsplit, unquote

VACCINATION_PROOF_MARKER = "Vaccination Proof: "
VACCINATION_PROOF_PATTERN = re.compile(re.escape(VACCINATION_PROOF_MARKER) + r"(https://\S+)")


def extract_vaccination_proof_url(health_info: Optional[str]) -> Optional[str]:
    """health_info에서 접종 증명서 URL을 추출합니다. 없으면 None."""
    if not health_info:
        return None
    match = VACCINATION_PROOF_PATTERN.search(health_info)
    return match.group(1) if match else None


def strip_vaccination_proof(health_info: Optional[str]) -> str:
    """화면 표시용으로 접종 증명서 마커와 URL을 제거한 텍스트를 반환합니다."""
    if not health_info:
        return ""
    return VACCINATION_PROOF_PATTERN.sub("", health_info).strip()


def attach_vaccination_proof(health_info: Optional[str], proof_url: str) -> str:
    """
    health_info 끝에 접종 증명서 URL을 붙입니다.
    기존 마커는 먼저 제거하므로 같은 URL로 여러 번 호출해도 결과가 같습니다.
    """
    if not proof_url.startswith("https://") or any(c.isspace() for c in proof_url):
        raise ValueError(f"접종 증명서 URL 형식이 올바르지 않습니다: {proof_url}")

    base = strip_vaccination_proof(health_info)
    line = f"{VACCINATION_PROOF_MARKER}{proof_url}"
    return f"{base}\n\n{line}" if base else line


def media_key_from_url(url: Optional[str]) -> Optional[str]:
    """
    공개 URL에서 Storage 키(마지막 경로 조각)를 파생합니다.
    쿼리 문자열은 무시하고 퍼센트 인코딩은 해제합니다. 키가 없으면 None.
    """
    if not url:
        return None
    path = urlsplit(url.strip()).path
    key = unquote(path.split("/")[-1])
    # Firebase 공개 URL은 폴더 구분자까지 인코딩하므로 디코딩 후 한 번 더 자릅니다.
    key = key.split("/")[-1]
    return key or None
