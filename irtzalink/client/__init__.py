"""
Client-side core: follow buttons, follow lists and the notification bell
"""
