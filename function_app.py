"""Azure Functions entry point for the listing lifecycle service."""
import json
import logging

import azure.functions as func

from listing_lifecycle.infrastructure.providers import check_dependencies, run_payment_sweep

app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)


# ============================================================================
# Health Check
# ============================================================================

@app.route(route="health", methods=["GET"])
async def health(req: func.HttpRequest) -> func.HttpResponse:
    report = await check_dependencies()
    return func.HttpResponse(
        json.dumps(report),
        mimetype="application/json",
        status_code=200 if report["status"] == "healthy" else 503,
    )


# ============================================================================
# Admin API - Run the payment expiration sweep on demand
# ============================================================================

@app.route(route="admin/payments/sweep", methods=["POST"])
async def trigger_sweep(req: func.HttpRequest) -> func.HttpResponse:
    try:
        expired = await run_payment_sweep()
    except Exception as exc:
        logging.error(f"Payment sweep failed: {exc}")
        return func.HttpResponse(
            json.dumps({"error": str(exc)}),
            mimetype="application/json",
            status_code=500,
        )

    return func.HttpResponse(
        json.dumps({"expired": expired}),
        mimetype="application/json",
    )


# ============================================================================
# Timer Trigger - Scheduled payment expiration
# ============================================================================

@app.schedule(schedule="0 */5 * * * *", arg_name="timer", run_on_startup=False)
async def scheduled_payment_sweep(timer: func.TimerRequest) -> None:
    """
    Runs every 5 minutes.
    Marks PENDING / PROOF_SUBMITTED / REJECTED payments past their window as EXPIRED.
    Reads apply the same rule lazily, so a late run never exposes a stale status.
    """
    if timer.past_due:
        logging.warning("Payment sweep timer is past due")

    try:
        expired = await run_payment_sweep()
        logging.info(f"Payment sweep completed: {expired} payment(s) expired")
    except Exception as exc:
        logging.error(f"Payment sweep failed: {exc}")
