#!/usr/bin/env python3
"""
Startup script for the property survey backend
"""
import os
from backend.app import create_app

if __name__ == '__main__':
    app = create_app()
    app.run(debug=os.getenv('FLASK_DEBUG') == '1', host='0.0.0.0', port=int(os.getenv('PORT', 4000)))
