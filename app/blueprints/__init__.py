"""
Access Engine
Blueprint registry: auth_bp, health_bp, task_links_bp (registered in create_app).
"""
