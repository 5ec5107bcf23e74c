"""Run script for the welfare fund administration API."""

import uvicorn
from welfare_admin.api.main import app
from welfare_admin.config.settings import get_settings

if __name__ == "__main__":
    settings = get_settings()

    print("🚀 Starting Welfare Fund Administration API")
    print(f"📍 Running on http://{settings.api_host}:{settings.api_port}")
    if settings.demo_mode:
        print("🧪 No Supabase credentials found, serving the in-memory demo tables")
    else:
        print(f"🔗 Connected to {settings.supabase_url}")

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        reload=False
    )
