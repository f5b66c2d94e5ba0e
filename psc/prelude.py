"""The Prelude module bundled with the driver.

Prepended to file-based input unless --no-prelude is given. When it is
present every other module imports it implicitly.
"""

PRELUDE = r'''module Prelude where

id :: forall a. a -> a
id x = x

const :: forall a b. a -> b -> a
const a b = a

flip :: forall a b c. (a -> b -> c) -> b -> a -> c
flip f b a = f a b

compose :: forall a b c. (b -> c) -> (a -> b) -> a -> c
compose f g x = f (g x)

apply :: forall a b. (a -> b) -> a -> b
apply f x = f x

not :: Boolean -> Boolean
not b = if b then false else true

negate :: Number -> Number
negate n = 0 - n

foreign import unit "var unit = {};" :: Unit

foreign import show "function show(a) {\n    return String(a);\n}" :: forall a. a -> String

foreign import pureE "function pureE(a) {\n    return function () {\n        return a;\n    };\n}" :: forall e a. a -> Eff e a

foreign import bindE "function bindE(a) {\n    return function (f) {\n        return function () {\n            return f(a())();\n        };\n    };\n}" :: forall e a b. Eff e a -> (a -> Eff e b) -> Eff e b

foreign import runPure "function runPure(f) {\n    return f();\n}" :: forall a. Pure a -> a

foreign import trace "function trace(s) {\n    return function () {\n        console.log(s);\n        return {};\n    };\n}" :: forall r. String -> Eff (trace :: Trace | r) Unit
'''
