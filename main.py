import argparse
import logging
import sys

# Configure Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)


def run_server(host: str, port: int):
    import uvicorn
    logging.info(f"Starting Collab Marketplace API on {host}:{port}")
    uvicorn.run("server:app", host=host, port=port)


def create_tables():
    from database.config import init_db
    init_db()


def main():
    parser = argparse.ArgumentParser(description="Collab Marketplace")
    parser.add_argument("--mode", choices=["serve", "init-db"], default="serve", help="Run the API or create tables")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    if args.mode == "serve":
        run_server(args.host, args.port)
    else:
        create_tables()


if __name__ == "__main__":
    main()
