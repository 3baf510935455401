"""sbgateway response models.

    responses.py — plain-text error responses, wire-encoded message responses
                   and the /status body model
"""
