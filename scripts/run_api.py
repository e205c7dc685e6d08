import argparse
import os
import subprocess
import sys
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(description="Run the AutoQuote pricing API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", default="8000")
    parser.add_argument("--data-dir", help="Directory holding pricing_rules.csv, products.csv, partners.csv")
    parser.add_argument("--no-reload", action="store_true")
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    # Ensure src is in python path
    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path
    if args.data_dir:
        env["AUTOQUOTE_DATA_DIR"] = str(Path(args.data_dir).resolve())

    command = [
        sys.executable, "-m", "uvicorn",
        "autoquote.api.main:app",
        "--host", args.host,
        "--port", args.port,
    ]
    if not args.no_reload:
        command.append("--reload")

    print("Starting AutoQuote Pricing API (FastAPI)...")
    try:
        subprocess.run(command, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
