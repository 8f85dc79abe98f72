from fastapi.testclient import TestClient
from civic_tracker.main import app

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
resp = client.get('/health/db')
print(resp.status_code)
print(resp.json())

print('\nPROFILE (X-User-ID, requires AUTH_MODE=header):')
resp = client.get('/profiles/me', headers={'X-User-ID': 'smoke-check'})
print(resp.status_code)
print(resp.json())
