"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py init-db
    flask --app run.py seed-defaults
    flask --app run.py --debug run
"""

from intake import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
