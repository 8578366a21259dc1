# chatguard/__init__.py
"""
chatguard: движок обнаружения злоупотреблений в чате и эскалации наказаний.
"""

__version__ = "1.0.0"
