"""
DocuChat entry point

    flask --app app run
    gunicorn app:app
"""
import os

from docuchat import create_app

app = create_app(os.getenv('FLASK_ENV', 'development'))

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '8080')))
