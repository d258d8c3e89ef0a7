import os

from landscape import create_app

# FLASK_ENV: development | production | testing
app = create_app(os.getenv("FLASK_ENV", "development"))

if __name__ == "__main__":
    # importante para Docker
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), debug=app.config.get("DEBUG", False))
