# /main.py

from dotenv import load_dotenv
import uvicorn

from core.config import settings


def main():
    """
    Starts the SCP Archive API server.
    """
    load_dotenv()
    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == '__main__':
    main()
