"""
클라이언트 IP 추출 유틸리티.

Rate limit 키와 요청 로그에 사용합니다. 프록시/로드밸런서 헤더를 우선합니다.
"""
from fastapi import Request

# 확인 순서: 일반 프록시 → nginx → Cloudflare
_FORWARDING_HEADERS = ("X-Forwarded-For", "X-Real-IP", "CF-Connecting-IP")

UNKNOWN_CLIENT = "unknown"


def get_client_ip(request: Request) -> str:
    """
    요청에서 실제 클라이언트 IP를 추출합니다.

    X-Forwarded-For 형식은 "client, proxy1, proxy2" 이므로 첫 번째 값을 사용합니다.
    헤더는 위조될 수 있으므로 신뢰할 수 있는 프록시 뒤에서만 의미가 있습니다.
    """
    for header in _FORWARDING_HEADERS:
        value = request.headers.get(header)
        if value:
            client_ip = value.split(",")[0].strip()
            if client_ip:
                return client_ip

    if request.client:
        return request.client.host
    return UNKNOWN_CLIENT
