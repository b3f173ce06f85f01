#!/usr/bin/env python3
"""
Startup script for the Clinic Booking backend.
This script can start the API server, check the environment, or seed demo data.
"""

import os
import sys
import asyncio
import argparse
import subprocess
from pathlib import Path


def run_api(reload: bool = True):
    """Run the FastAPI server"""
    from core import config

    print("🚀 Starting FastAPI server...")
    cmd = [
        sys.executable, "-u", "-m", "uvicorn", "api.main:app",
        "--host", config.API_HOST, "--port", str(config.API_PORT),
    ]
    if reload:
        cmd.append("--reload")
    env = os.environ.copy()
    env["PYTHONUNBUFFERED"] = "1"
    return subprocess.Popen(
        cmd,
        cwd=Path(__file__).parent,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,
        env=env
    )


def check_environment():
    """Check if recommended environment variables are set"""
    recommended_vars = [
        "MONGODB_URI",
        "JWT_SECRET",
        "FRONTEND_URL",
    ]

    missing_vars = [var for var in recommended_vars if not os.getenv(var)]

    if missing_vars:
        print("⚠️  Using defaults for unset environment variables:")
        for var in missing_vars:
            print(f"   - {var}")
        print("\n💡 Set them in .env.local for production")
    else:
        print("✅ Environment variables configured")

    if not os.getenv("JWT_SECRET"):
        print("❌ JWT_SECRET is not set; tokens are signed with the development key")
        return False
    return True


def check_dependencies():
    """Check if required dependencies are installed"""
    try:
        import fastapi
        import motor
        import jose
        import passlib
        print("✅ Dependencies installed")
        return True
    except ImportError as e:
        print(f"❌ Missing dependency: {e}")
        print("💡 Run: pip install -e .")
        return False


DEMO_SERVICES = [
    {"name": "General Consultation", "description": "Initial consultation with a physician", "duration": 30, "price": 40.0},
    {"name": "Follow-up Visit", "description": "Review of an ongoing treatment", "duration": 15, "price": 20.0},
    {"name": "Cardiac Checkup", "description": "ECG and blood pressure assessment", "duration": 60, "price": 120.0},
    {"name": "Dental Cleaning", "description": "Scaling and polishing", "duration": 45, "price": 60.0},
]


async def seed_database():
    """Create demo admin, patient, doctor and services (idempotent)"""
    from core.database import DatabaseManager
    from core.models import Gender, Role, Service, Specialty, User
    from core.security import hash_password

    db = DatabaseManager()
    await db.connect()

    users = [
        User(email="admin@example.com", password=hash_password("admin123"),
             name="Admin User", role=Role.ADMIN),
        User(email="patient@example.com", password=hash_password("patient123"),
             name="John Doe", role=Role.PATIENT, gender=Gender.MALE),
        User(email="doctor@example.com", password=hash_password("doctor123"),
             name="Dr. Sarah Smith", role=Role.DOCTOR, specialty=Specialty.CARDIOLOGIST),
    ]

    try:
        for user in users:
            if await db.get_user_by_email(user.email):
                print(f"↩️  {user.role.value.title()} already exists: {user.email}")
                continue
            await db.create_user(user.to_dict())
            print(f"✅ {user.role.value.title()} user created: {user.email}")

        existing = {service["name"] for service in await db.list_active_services()}
        for service in DEMO_SERVICES:
            if service["name"] in existing:
                continue
            await db.create_service(Service(**service).to_dict())
            print(f"✅ Service created: {service['name']}")
    finally:
        await db.close()


def main():
    parser = argparse.ArgumentParser(description="Clinic Booking Startup Script")
    parser.add_argument(
        "command",
        choices=["api", "check", "seed"],
        help="What to run: api server, check environment, or seed demo data"
    )
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto reload of the API server"
    )

    args = parser.parse_args()

    # Load environment variables
    from dotenv import load_dotenv
    load_dotenv(".env.local")

    if args.command == "check":
        print("🔍 Checking system requirements...")
        env_ok = check_environment()
        deps_ok = check_dependencies()

        if env_ok and deps_ok:
            print("✅ System ready!")
            return 0
        else:
            print("❌ System not ready")
            return 1

    if not check_dependencies():
        return 1

    if args.command == "seed":
        print("🌱 Seeding database...")
        asyncio.run(seed_database())
        print("✅ Seeding finished")
        return 0

    process = run_api(reload=not args.no_reload)
    try:
        print("✅ API server starting... (logs below)\n")
        # Stream output in real-time
        for line in iter(process.stdout.readline, ''):
            if not line:
                break
            print(line.rstrip())

        # Wait for process to complete
        return_code = process.wait()
        if return_code != 0:
            print(f"\n❌ API server exited with code {return_code}")
            return 1
    except KeyboardInterrupt:
        print("\n🛑 Stopping API server...")
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    return 0


if __name__ == "__main__":
    sys.exit(main())
