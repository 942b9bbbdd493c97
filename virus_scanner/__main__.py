"""Run the service with uvicorn: ``python -m virus_scanner``.

Binds to ``HOST``/``PORT`` (default ``0.0.0.0:80``, the mu-semtech
convention).  A single worker is used; scan batches live in the process.
"""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "virus_scanner.main:build_app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "80")),
        workers=1,
        factory=True,
    )


if __name__ == "__main__":
    main()
