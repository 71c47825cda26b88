import os

import uvicorn


def main():
    uvicorn.run(
        "medconsole.main:app",
        host=os.getenv("CONSOLE_HOST", "0.0.0.0"),
        port=int(os.getenv("CONSOLE_PORT", "8010")),
    )


if __name__ == "__main__":
    main()
