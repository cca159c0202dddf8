from rest_framework.throttling import SimpleRateThrottle


class LoginRateThrottle(SimpleRateThrottle):
    scope = 'login'

    # Keyed on IP plus the submitted identifier so one account cannot be brute forced.
    def get_cache_key(self, request, view):
        ip_addr = self.get_ident(request)
        identifier = request.data.get('username') or request.data.get('email')

        if identifier:
            return self.cache_format % {
                'scope': self.scope,
                'ident': f'{ip_addr}:{str(identifier).lower()}'
            }

        return self.cache_format % {
            'scope': self.scope,
            'ident': ip_addr
        }
