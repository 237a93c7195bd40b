# parking_gateway/__main__.py
import uvicorn

from .config import HOST, PORT, LOG_LEVEL
from .main import app


def main():
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
