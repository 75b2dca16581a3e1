"""Sign-in / sign-up failures and the messages shown for them."""

USER_NOT_FOUND = 'user-not-found'
WRONG_PASSWORD = 'wrong-password'
EMAIL_ALREADY_IN_USE = 'email-already-in-use'
WEAK_PASSWORD = 'weak-password'
INVALID_EMAIL = 'invalid-email'

MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS_MESSAGE = 'Email hoặc mật khẩu không chính xác.'
GENERIC_MESSAGE = 'Đã xảy ra lỗi. Vui lòng thử lại.'

AUTH_ERROR_MESSAGES = {
    USER_NOT_FOUND: INVALID_CREDENTIALS_MESSAGE,
    WRONG_PASSWORD: INVALID_CREDENTIALS_MESSAGE,
    EMAIL_ALREADY_IN_USE: 'Email này đã được sử dụng.',
    WEAK_PASSWORD: 'Mật khẩu phải có ít nhất 6 ký tự.',
    INVALID_EMAIL: 'Vui lòng nhập một địa chỉ email hợp lệ.',
}


def auth_error_message(code):
    return AUTH_ERROR_MESSAGES.get(code, GENERIC_MESSAGE)


class AuthError(Exception):
    def __init__(self, code):
        self.code = code
        self.message = auth_error_message(code)
        super().__init__(self.message)

    def as_dict(self):
        return {'code': self.code, 'error': self.message}
