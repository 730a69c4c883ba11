from storefront.schemas.auth import (
    SignupStep1Request,
    SignupStep2Request,
    SignupStep3Request,
    SendCodeRequest,
    VerifyCodeRequest,
    RegisterRequest,
    UserLogin,
    UserResponse,
    MessageResponse,
    VerifyCodeResponse,
    AuthResponse,
)
