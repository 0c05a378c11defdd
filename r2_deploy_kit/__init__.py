"""
r2_deploy_kit
-------------

Cloudflare Workers + R2 기반 pull-through 컨테이너 레지스트리 배포 CLI 패키지.
cloudflare/serverless-registry 를 clone 하고 wrangler.toml 생성, R2 버킷/lifecycle 규칙 설정,
의존성 설치, Worker secret 설정, 배포까지 한 번에 수행하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
