"""Local development entry point.

Usage:
    python run.py

Stripe CLI forwarding for local webhook testing:
    stripe listen --forward-to localhost:5001/stripe/webhooks
    stripe listen --forward-connect-to localhost:5001/stripe/webhooks/connected
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from regpay import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
