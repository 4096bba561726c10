#!/usr/bin/env python3
import asyncio

from dotenv import load_dotenv

from oif_solver.main import main

if __name__ == "__main__":
    # CONFIG_FILE may come from .env
    load_dotenv()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
