# rental_monitor/main.py
from fastapi import FastAPI
from rental_monitor.api.routes import router as api_router
from rental_monitor.db import engine, init_db

# create FastAPI instance
app = FastAPI(title="rental-monitor")
app.include_router(api_router)


@app.on_event("startup")
def on_startup_create_tables():
    # Ensure database tables are created on startup
    init_db(engine)
