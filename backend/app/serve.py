"""Run the HTTP API and the Socket.IO endpoint under uvicorn."""

from __future__ import annotations

import uvicorn

from app.settings import settings


def main() -> None:
	uvicorn.run(
		"app.main:socket_app",
		host=settings.bind_host,
		port=settings.bind_port,
		log_config=None,
		proxy_headers=True,
	)


if __name__ == "__main__":
	main()
