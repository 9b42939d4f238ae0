"""Print a bearer token for manual testing against a local-mode server.

Usage: AUTH_MODE=local python scripts/mint_token.py UID [--email EMAIL] [--hours N]

Then: curl -H "Authorization: Bearer <token>" -d '{}' localhost:8000/api/user/get
"""
import sys
import argparse
import pathlib
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from lnconnext.auth import create_local_token
from lnconnext.config import settings

if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument('uid')
    p.add_argument('--email', default='')
    p.add_argument('--verified', action='store_true')
    p.add_argument('--hours', type=int, default=24)
    args = p.parse_args()
    if settings.AUTH_MODE != 'local':
        print('warning: server is not in AUTH_MODE=local; this token will be rejected', file=sys.stderr)
    print(create_local_token(args.uid, email=args.email, email_verified=args.verified, expires_in_hours=args.hours))
