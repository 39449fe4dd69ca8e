"""Run the API with uvicorn: ``python -m app``."""

import uvicorn

from app.settings import FORWARDED_ALLOW_IPS, PORT, SHUTDOWN_GRACE_SECONDS


def main() -> None:
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=PORT,
        log_config=None,
        proxy_headers=True,
        forwarded_allow_ips=FORWARDED_ALLOW_IPS,
        timeout_graceful_shutdown=int(SHUTDOWN_GRACE_SECONDS),
    )


if __name__ == "__main__":
    main()
