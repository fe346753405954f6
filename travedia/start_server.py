"""
Travedia Server Launcher
Builds the app from the environment; `uvicorn travedia.start_server:app`
"""

import os
import sys

from .server import create_app

app = create_app()


def main():
    import uvicorn

    port = int(os.getenv('PORT', '8000'))
    print(f"🚀 Starting Travedia API on port {port}", file=sys.stderr)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
