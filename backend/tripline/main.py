import uvicorn

from tripline.core.app import create_app
from tripline.core.settings import settings

app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=settings.uvicorn_host, port=settings.uvicorn_port)
