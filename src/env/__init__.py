# env package
