from fastapi import FastAPI, Request, Header, HTTPException

from ollamabot import __version__
from ollamabot.config import get_settings
from ollamabot.telegram_bot.bot import handle_telegram_update, initialize_bot, shutdown_bot
from ollamabot.telegram_bot.logging_config import bot_logger as logger

app = FastAPI(
    title="Ollama Relay Bot",
    description="Telegram bot relaying messages to an Ollama model",
    version=__version__
)


# Lifecycle events
@app.on_event("startup")
async def startup_event():
    """Initialize bot on startup."""
    logger.info("[STARTUP] Initializing Telegram bot...")
    await initialize_bot()
    logger.info("[STARTUP] Bot ready")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown bot on application shutdown."""
    logger.info("[SHUTDOWN] Shutting down Telegram bot...")
    await shutdown_bot()
    logger.info("[SHUTDOWN] Bot stopped")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "model": settings.ollama_model,
        "auth_enabled": settings.bot_auth_enabled,
        "version": __version__
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Ollama Relay Bot",
        "docs": "/docs"
    }


# Telegram webhook endpoint
@app.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None)
):
    """
    Webhook endpoint for Telegram updates.

    Telegram sends updates here when messages arrive.
    """
    settings = get_settings()

    if settings.telegram_webhook_secret and x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
        logger.warning("Webhook call with invalid secret token")
        raise HTTPException(status_code=403, detail="Invalid secret token")

    update_data = await request.json()
    await handle_telegram_update(update_data)
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
