from habitlog.main import create_app

app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host=os.getenv("HABITLOG_HOST", "127.0.0.1"), port=int(os.getenv("HABITLOG_PORT", "8000")))
