"""Starter post-scripts, keyed by name."""

SCRIPT_TEMPLATES: dict[str, str] = {
    "basic_json_extraction": """\
# Copy a token and a user id from a JSON response into globals
if getStatus() == 200:
    token = getData('token') or getData('access_token')
    if token:
        setGlobalVariable('AUTH_TOKEN', token, 'API auth token')

    user_id = getData('user.id') or getData('data.user.id')
    if user_id:
        setGlobalVariable('USER_ID', str(user_id), 'User id')

    console.log('Variables extracted')
""",
    "array_data_extraction": """\
# Take the first element of a list
items = getData('data.items')
if isinstance(items, list) and len(items) > 0:
    first = items[0]
    if first.get('id') is not None:
        setGlobalVariable('FIRST_ITEM_ID', str(first['id']), 'First item id')
    if first.get('name'):
        setGlobalVariable('FIRST_ITEM_NAME', str(first['name']), 'First item name')
""",
    "header_extraction": """\
# Copy values out of the response headers
headers = getHeaders()
if headers.get('x-session-id'):
    setGlobalVariable('SESSION_ID', headers['x-session-id'], 'Session id')
if headers.get('x-api-version'):
    setGlobalVariable('API_VERSION', headers['x-api-version'], 'API version')
""",
    "conditional_processing": """\
# Branch on the status code
status = getStatus()
data = getData() or {}

if status == 200:
    console.log('Success response')
    if data.get('result') == 'success':
        setGlobalVariable('LAST_OPERATION_STATUS', 'SUCCESS', 'Last operation status')
        if data.get('message'):
            setGlobalVariable('LAST_SUCCESS_MESSAGE', str(data['message']), 'Success message')
elif status >= 400:
    console.error('Error response:', status)
    setGlobalVariable('LAST_OPERATION_STATUS', 'ERROR', 'Last operation status')
    if data.get('error'):
        setGlobalVariable('LAST_ERROR_MESSAGE', str(data['error']), 'Error message')
""",
    "complex_processing": """\
# Summarize a paginated list response
status = getStatus()
users = getData('data.users')

if status == 200 and isinstance(users, list):
    active = [user for user in users if user.get('active')]
    setGlobalVariable('ACTIVE_USER_COUNT', len(active), 'Active users on this page')
    if active:
        setGlobalVariable('FIRST_ACTIVE_USER_ID', str(active[0].get('id')))

    next_page = getData('pagination.next_page')
    if next_page:
        setGlobalVariable('NEXT_PAGE', next_page, 'Next page number')

    console.log('Processed', len(users), 'users in', getDuration(), 'ms')
""",
}
