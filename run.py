import os

import uvicorn

from examtrack.settings import _env_bool, _env_int


if __name__ == "__main__":
    # UVICORN_HOST/UVICORN_PORT win over HOST/PORT; the default is 0.0.0.0:8000
    # so officers' phones on the same network can reach the tracking socket.
    host = os.getenv("UVICORN_HOST", os.getenv("HOST", "0.0.0.0"))
    port = _env_int("UVICORN_PORT", _env_int("PORT", 8000))

    uvicorn.run(
        "examtrack.main:app",
        host=host,
        port=port,
        reload=_env_bool("RELOAD", False),  # set RELOAD=1 while developing
    )
