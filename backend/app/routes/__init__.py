# Routes package init
"""
ContactBook Backend — API Routes Package
==========================================

Route Inventory:
    - auth.py:      POST /auth/register, /auth/login, /auth/refresh,
                    /auth/logout, /auth/send-reset-email, /auth/reset-pwd
                    GET  /auth/current
    - contacts.py:  GET/POST /contacts, GET/PATCH/DELETE /contacts/{id}
    - files.py:     GET  /files/{path}   (locally stored photos)
    - health.py:    GET  /health

Routes stay thin: parse the request, call a service, shape the response.
Errors are raised as application exceptions and formatted by the global
handlers in main.py.
"""
