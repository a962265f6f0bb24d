# /myhome/utils/responses.py
from flask import jsonify


def envelope(message=None, data=None, status=200):
    """Successful response in the API's uniform ``{success, message?, data?}`` shape."""
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status
