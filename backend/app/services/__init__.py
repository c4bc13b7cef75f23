# Services package init
"""
ContactBook Backend — Services Layer
======================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Services are built once in the app factory from Settings and stored on
       `app.state`; routes reach them through FastAPI dependencies in deps.py.

Service Inventory:
    - TokenService:     sign/verify access, refresh and reset JWTs
    - password:         bcrypt hash/verify helpers
    - AuthService:      register, login, refresh, logout, reset, authenticate
    - ContactService:   per-user contact CRUD
    - MediaStorage:     abstract "store image, return URL"
        ├── LocalMediaStorage:       date-organized files under storage_root
        └── CloudinaryStorage:       Cloudinary upload API
    - Mailer:           password-reset email over SMTP
    - retry_policy:     tenacity policy shared by Mailer and CloudinaryStorage
"""
